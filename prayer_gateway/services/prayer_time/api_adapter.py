# This module selects and builds the upstream prayer time API adapter.
from flask import current_app # To access app.logger and app.config

from prayer_gateway.services.api_adapters.aladhan_adapter import AlAdhanAdapter
from prayer_gateway.services.api_adapters.base_adapter import BasePrayerAdapter

ADAPTERS = {
    "AlAdhanAdapter": AlAdhanAdapter,
}


def get_selected_api_adapter() -> BasePrayerAdapter:
    """
    Returns the API adapter selected in the configuration. The adapter (and its
    HTTP session) is built once per application and reused afterwards.
    """
    adapter = current_app.extensions.get('prayer_api_adapter')
    if adapter is not None:
        return adapter

    adapter_name = current_app.config.get('PRAYER_API_ADAPTER', "AlAdhanAdapter")
    base_url = current_app.config.get('PRAYER_API_BASE_URL')

    adapter_class = ADAPTERS.get(adapter_name)
    if adapter_class is None:
        raise RuntimeError(f"Unsupported Prayer API Adapter: {adapter_name}")
    if not base_url:
        raise RuntimeError(f"{adapter_name}: PRAYER_API_BASE_URL is not configured.")

    adapter = adapter_class(
        base_url=base_url,
        api_key=current_app.config.get('PRAYER_API_KEY'),
        timeout=current_app.config.get('PRAYER_API_TIMEOUT_SECONDS', 10),
        calendar_timeout=current_app.config.get('PRAYER_API_CALENDAR_TIMEOUT_SECONDS', 30),
        max_retries=current_app.config.get('PRAYER_API_MAX_RETRIES', 3),
        backoff_factor=current_app.config.get('PRAYER_API_BACKOFF_FACTOR', 0.5),
    )
    current_app.extensions['prayer_api_adapter'] = adapter
    current_app.logger.info(f"Initialized prayer API adapter {adapter_name} with base_url: {base_url}")
    return adapter
