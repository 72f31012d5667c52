# prayer_gateway/schemas.py

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from .services.helpers.constants import CALCULATION_METHODS, SCHOOLS

# --- Query argument schemas ---

class MethodArgsMixin(Schema):
    method = fields.Int(validate=validate.OneOf(list(CALCULATION_METHODS)))
    school = fields.Int(validate=validate.OneOf(list(SCHOOLS)))


class CoordinatesArgsSchema(Schema):
    latitude = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    longitude = fields.Float(required=True, validate=validate.Range(min=-180, max=180))


class TimingsArgsSchema(CoordinatesArgsSchema, MethodArgsMixin):
    refresh = fields.Bool(load_default=False)


class CityTimingsArgsSchema(MethodArgsMixin):
    city = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    country = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    refresh = fields.Bool(load_default=False)


class CalendarArgsSchema(CoordinatesArgsSchema, MethodArgsMixin):
    pass


class QiblaArgsSchema(CoordinatesArgsSchema):
    pass


class LocationInvalidationArgsSchema(Schema):
    """Either a coordinate pair or a city/country pair identifies the location."""
    latitude = fields.Float(validate=validate.Range(min=-90, max=90))
    longitude = fields.Float(validate=validate.Range(min=-180, max=180))
    city = fields.Str(validate=validate.Length(min=1, max=100))
    country = fields.Str(validate=validate.Length(min=1, max=100))

    @validates_schema
    def validate_location(self, data, **kwargs):
        has_coords = 'latitude' in data and 'longitude' in data
        has_city = 'city' in data and 'country' in data
        if not has_coords and not has_city:
            raise ValidationError("Provide either latitude and longitude, or city and country.")

# --- Response schemas ---

class HijriMonthSchema(Schema):
    number = fields.Int(allow_none=True)
    en = fields.Str(allow_none=True)
    ar = fields.Str(allow_none=True)


class HijriDateSchema(Schema):
    date = fields.Str(allow_none=True)
    day = fields.Str(allow_none=True)
    month = fields.Nested(HijriMonthSchema)
    year = fields.Str(allow_none=True)


class DateInfoSchema(Schema):
    readable = fields.Str(allow_none=True)
    gregorian = fields.Str(required=True)
    hijri = fields.Nested(HijriDateSchema)


class MethodSchema(Schema):
    id = fields.Int(required=True)
    name = fields.Str(allow_none=True)


class TimingsSchema(Schema):
    Fajr = fields.Str(required=True)
    Sunrise = fields.Str(required=True)
    Dhuhr = fields.Str(required=True)
    Asr = fields.Str(required=True)
    Maghrib = fields.Str(required=True)
    Isha = fields.Str(required=True)


class PrayerRecordSchema(Schema):
    timings = fields.Nested(TimingsSchema, required=True)
    date = fields.Nested(DateInfoSchema, required=True)
    method = fields.Nested(MethodSchema, required=True)
    school = fields.Int(required=True)
    timezone = fields.Str(allow_none=True)
    latitude = fields.Float(allow_none=True)
    longitude = fields.Float(allow_none=True)


class HijriConversionDateSchema(HijriDateSchema):
    weekday = fields.Str(allow_none=True)
    holidays = fields.List(fields.Str())


class HijriConversionSchema(Schema):
    gregorian = fields.Str(required=True)
    hijri = fields.Nested(HijriConversionDateSchema)


class QiblaSchema(Schema):
    latitude = fields.Float(required=True)
    longitude = fields.Float(required=True)
    direction = fields.Float(required=True)


class EnvelopeSchema(Schema):
    """Same {code, status, data} envelope as the upstream provider."""
    code = fields.Int(required=True)
    status = fields.Str(required=True)


class PrayerTimesResponseSchema(EnvelopeSchema):
    data = fields.Nested(PrayerRecordSchema, required=True)


class CalendarResponseSchema(EnvelopeSchema):
    data = fields.List(fields.Nested(PrayerRecordSchema), required=True)


class HijriResponseSchema(EnvelopeSchema):
    data = fields.Nested(HijriConversionSchema, required=True)


class QiblaResponseSchema(EnvelopeSchema):
    data = fields.Nested(QiblaSchema, required=True)


class InvalidationResultSchema(Schema):
    location = fields.Str(required=True)
    invalidated = fields.Int(required=True)


class InvalidationResponseSchema(EnvelopeSchema):
    data = fields.Nested(InvalidationResultSchema, required=True)


class QuotaSchema(Schema):
    tier = fields.Str(required=True)
    limits = fields.List(fields.Str(), required=True)
    calendar_limit = fields.Str(required=True)


class MessageSchema(Schema):
    message = fields.Str(required=True)


class HealthSchema(Schema):
    status = fields.Str(required=True)
    redis = fields.Str(required=True)
