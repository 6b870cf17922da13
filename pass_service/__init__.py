"""
Satellite Pass Prediction Package

This package predicts when amateur-radio satellites (and the ISS) pass over an
observer, whether those passes are optically visible, and what the antenna
pointing angles are throughout each pass.

Modules:
    models: Pydantic data model shared by every component
    tle_parser: TLE checksum validation and response parsing
    cache: Namespaced cache service (Redis or in-memory)
    http_client: requests wrapper with explicit timeouts
    element_store: Single-satellite and bulk orbital element stores
    geometry: SGP4 propagation, frame transforms and look angles
    sun: Low-precision solar ephemeris and shadow test
    pass_predictor: Horizon-crossing pass detection and refinement
    visibility: Optical visibility evaluation of passes
    weather: Hourly forecast fetch and go/no-go viewing weather
    transmitters: SatNOGS transmitter registry client
    metadata: Curated satellite metadata
    catalog: Satellite catalog merge, search and lookup
    doppler: Doppler correction for uplink/downlink frequencies
    qth_locator: Maidenhead locator conversions
    service: Facade exposing the caller-facing API
    app: Flask HTTP API

References:
    Vallado, D. A., Crawford, P., Hujsak, R., & Kelso, T. S. (2006).
    Revisiting Spacetrack Report #3. AIAA 2006-6753.

    Meeus, J. (1998). Astronomical Algorithms (2nd ed.), ch. 25.
"""

__version__ = "1.0.0"
