# prayer_gateway/services/helpers/constants.py

# The fixed set of times every prayer-time record carries, in daily order.
PRAYER_NAMES = ("Fajr", "Sunrise", "Dhuhr", "Asr", "Maghrib", "Isha")

# AlAdhan calculation method IDs. 99 (custom) is not offered because it needs extra settings.
CALCULATION_METHODS = {
    0: "Shia Ithna-Ashari (Jafari)",
    1: "University of Islamic Sciences, Karachi",
    2: "Islamic Society of North America (ISNA)",
    3: "Muslim World League",
    4: "Umm Al-Qura University, Makkah",
    5: "Egyptian General Authority of Survey",
    7: "Institute of Geophysics, University of Tehran",
    8: "Gulf Region",
    9: "Kuwait",
    10: "Qatar",
    11: "Majlis Ugama Islam Singapura, Singapore",
    12: "Union Organization Islamic de France",
    13: "Diyanet Isleri Baskanligi, Turkey",
    14: "Spiritual Administration of Muslims of Russia",
    15: "Moonsighting Committee Worldwide",
    16: "Dubai",
    17: "Jabatan Kemajuan Islam Malaysia (JAKIM)",
    18: "Tunisia",
    19: "Algeria",
    20: "Kementerian Agama Republik Indonesia",
    21: "Morocco",
    22: "Comunidade Islamica de Lisboa",
    23: "Ministry of Awqaf, Islamic Affairs and Holy Places, Jordan",
}

# Juristic school used for the Asr shadow length.
SCHOOLS = {
    0: "Shafi (Standard)",
    1: "Hanafi",
}

# Used when the upstream gives no usable timezone: the earliest day boundary on Earth,
# so a cache entry can never outlive its date.
EARLIEST_TIMEZONE = "Etc/GMT-14"
