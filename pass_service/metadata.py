"""
Curated Satellite Metadata

Hand-verified frequencies and modes for popular amateur-radio satellites.
Curated values take precedence over SatNOGS transmitter data when the
catalog is built.
"""

from typing import Dict, List, Optional

from pass_service.models import SatelliteCategory, SatelliteInfo, SatelliteStatus

DEFAULT_SATELLITE_NORAD_ID = "25544"

# Shown first in the catalog, in this order
FEATURED_SATELLITES: List[str] = [
    "25544",  # ISS
    "27607",  # SO-50
    "43017",  # AO-91
    "44909",  # RS-44
    "43700",  # QO-100
    "25338",  # NOAA 15
]

CATEGORY_LABELS: Dict[SatelliteCategory, str] = {
    SatelliteCategory.FM_VOICE: "FM Voice",
    SatelliteCategory.LINEAR: "Linear (SSB/CW)",
    SatelliteCategory.DIGITAL: "Digital",
    SatelliteCategory.WEATHER: "Weather",
    SatelliteCategory.OTHER: "Other",
}

# Exact matches are tried first, then substring matches in this order
MODE_TO_CATEGORY: Dict[str, SatelliteCategory] = {
    "FM": SatelliteCategory.FM_VOICE,
    "AFSK": SatelliteCategory.DIGITAL,
    "APRS": SatelliteCategory.DIGITAL,
    "AX.25": SatelliteCategory.DIGITAL,
    "BPSK": SatelliteCategory.DIGITAL,
    "CW": SatelliteCategory.LINEAR,
    "DQPSK": SatelliteCategory.DIGITAL,
    "DSTAR": SatelliteCategory.DIGITAL,
    "FSK": SatelliteCategory.DIGITAL,
    "GFSK": SatelliteCategory.DIGITAL,
    "GMSK": SatelliteCategory.DIGITAL,
    "LRPT": SatelliteCategory.WEATHER,
    "MSK": SatelliteCategory.DIGITAL,
    "OQPSK": SatelliteCategory.DIGITAL,
    "PSK": SatelliteCategory.DIGITAL,
    "QPSK": SatelliteCategory.DIGITAL,
    "SSB": SatelliteCategory.LINEAR,
    "USB": SatelliteCategory.LINEAR,
    "LSB": SatelliteCategory.LINEAR,
    "SSTV": SatelliteCategory.DIGITAL,
    "APT": SatelliteCategory.WEATHER,
    "HRPT": SatelliteCategory.WEATHER,
}


def _curated(sat_id, name, norad_id, category, uplink, downlink, mode, description) -> SatelliteInfo:
    return SatelliteInfo(
        id=sat_id,
        name=name,
        norad_id=norad_id,
        category=category,
        uplink=uplink,
        downlink=downlink,
        mode=mode,
        description=description,
        status=SatelliteStatus.ACTIVE,
    )


FM, LINEAR, DIGITAL, WEATHER, OTHER = (
    SatelliteCategory.FM_VOICE,
    SatelliteCategory.LINEAR,
    SatelliteCategory.DIGITAL,
    SatelliteCategory.WEATHER,
    SatelliteCategory.OTHER,
)

CURATED_SATELLITES: List[SatelliteInfo] = [
    # FM voice
    _curated("iss", "ISS (ZARYA)", "25544", FM, "145.990 MHz", "145.800 MHz", "FM Voice/APRS",
             "International Space Station - FM voice and APRS operations"),
    _curated("so-50", "SO-50 (SaudiSat-1C)", "27607", FM, "145.850 MHz (67 Hz)", "436.795 MHz", "FM Voice",
             "Popular FM satellite for beginners - needs a 67 Hz tone to activate"),
    _curated("ao-91", "AO-91 (RadFxSat)", "43017", FM, "435.250 MHz (67 Hz)", "145.960 MHz", "FM Voice",
             "FM satellite with good coverage - VHF downlink"),
    _curated("po-101", "PO-101 (Diwata-2)", "43678", FM, "145.900 MHz", "437.500 MHz", "FM Voice",
             "Philippine satellite with an FM transponder"),
    _curated("ao-27", "AO-27", "22825", FM, "145.850 MHz", "436.795 MHz", "FM Voice",
             "Veteran FM satellite - sporadic operation"),

    # Linear transponders (SSB/CW)
    _curated("rs-44", "RS-44 (DOSAAF-85)", "44909", LINEAR, "145.935-145.995 MHz", "435.610-435.670 MHz",
             "SSB/CW Linear", "Russian linear transponder - excellent for SSB and CW"),
    _curated("ao-07", "AO-07 (AMSAT-OSCAR 7)", "07530", LINEAR, "145.850-145.950 MHz", "29.400-29.500 MHz",
             "SSB/CW Linear", "Historic 1974 satellite, still operational in modes A and B"),
    _curated("fo-29", "FO-29 (JAS-2)", "24278", LINEAR, "145.900-146.000 MHz", "435.800-435.900 MHz",
             "SSB/CW Linear", "Japanese linear transponder - mode V/U"),
    _curated("xw-2a", "XW-2A (CAS-3A)", "40903", LINEAR, "435.030-435.050 MHz", "145.665-145.685 MHz",
             "SSB/CW Linear", "Chinese linear transponder - mode U/V"),
    _curated("xw-2c", "XW-2C (CAS-3C)", "40906", LINEAR, "435.130-435.150 MHz", "145.795-145.815 MHz",
             "SSB/CW Linear", "Chinese linear transponder - mode U/V"),
    _curated("eo-88", "EO-88 (Nayif-1)", "42017", LINEAR, "435.045-435.065 MHz", "145.940-145.960 MHz",
             "SSB/CW Linear", "Linear transponder from the United Arab Emirates"),
    _curated("jo-97", "JO-97 (FalconSat-3)", "30776", LINEAR, "435.100-435.125 MHz", "145.890-145.920 MHz",
             "SSB/CW Linear", "Experimental linear transponder"),
    _curated("qo-100", "QO-100 (Es'hail-2)", "43700", LINEAR, "2400.050-2400.300 MHz", "10489.550-10489.800 MHz",
             "SSB/CW/DATV", "Geostationary satellite with narrowband and wideband transponders"),

    # Digital
    _curated("iss-aprs", "ISS APRS Digipeater", "25544", DIGITAL, "145.825 MHz", "145.825 MHz", "APRS Packet",
             "APRS digipeater on the ISS - a good first satellite contact"),
    _curated("no-44", "NO-44 (PCSAT)", "26931", DIGITAL, "145.825 MHz", "145.825 MHz", "APRS Packet",
             "APRS digipeater - intermittent operation"),
    _curated("ariss", "ARISS (Amateur Radio on ISS)", "25544", DIGITAL, "145.200 MHz", "145.800 MHz",
             "Voice/SSTV/Packet", "Amateur radio on the ISS - school contacts and SSTV"),

    # Weather
    _curated("noaa-15", "NOAA 15", "25338", WEATHER, None, "137.620 MHz", "APT",
             "Weather satellite - APT images on 137 MHz"),
    _curated("noaa-18", "NOAA 18", "28654", WEATHER, None, "137.9125 MHz", "APT",
             "Weather satellite - APT images on 137 MHz"),
    _curated("noaa-19", "NOAA 19", "33591", WEATHER, None, "137.100 MHz", "APT",
             "Weather satellite - APT images on 137 MHz"),
    _curated("meteor-m2-3", "METEOR-M2 3", "57166", WEATHER, None, "137.900 MHz", "LRPT",
             "Russian weather satellite - high resolution LRPT images"),
    _curated("meteor-m2-4", "METEOR-M2 4", "59051", WEATHER, None, "137.100 MHz", "LRPT",
             "Russian weather satellite - high resolution LRPT images"),

    # Other / CubeSats
    _curated("cute-1", "CUTE-1", "27844", OTHER, None, "436.8375 MHz", "CW/Telemetry",
             "Experimental Japanese CubeSat"),
    _curated("lilacsat-2", "LilacSat-2", "40908", DIGITAL, "144.350 MHz", "437.200 MHz", "FM/APRS",
             "Chinese CubeSat with FM and APRS"),
]


def get_curated_satellite(norad_id: str) -> Optional[SatelliteInfo]:
    """First curated entry for a catalog number."""
    for satellite in CURATED_SATELLITES:
        if satellite.norad_id == norad_id:
            return satellite
    return None


def get_curated_satellites_by_category(category: SatelliteCategory) -> List[SatelliteInfo]:
    return [s for s in CURATED_SATELLITES if s.category == category]


def has_curated_metadata(norad_id: str) -> bool:
    return get_curated_satellite(norad_id) is not None
