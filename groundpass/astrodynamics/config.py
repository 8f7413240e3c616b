from groundpass.base.config import Config


class AstrodynamicsConfig(Config):
    name = "Astrodynamics"

    # Ground station
    LATITUDE = 52.4954800000
    LONGITUDE = 13.4684300000
    ALTITUDE = 0.0  # (meters)

    # Constraints
    MIN_ELEVATION = 0  # (degrees)
    MAX_RANGE = 2_500_000  # ground range from station to sub-point (meters)

    # Prediction window
    DAYS_TO_PROPAGATE = 10
    STEP_SECONDS = 60
    BUFFER_MINUTES = 2

    # Local 3-line TLE file
    TLE_PATH = "~/groundpass/tle/weather.txt"

    # Satellite name -> channel tag passed to the recorder
    CHANNELS = {
        "NOAA 15": "137.62M",
        "NOAA 18": "137.9125M",
        "NOAA 19": "137.1M",
    }
