"""
Web API configuration.
"""
from adreport.config import config

# Web server settings
WEB_HOST = config.web.host
WEB_PORT = config.web.port

# Applied to every report endpoint, per client address
RATE_LIMIT = f"{config.web.rate_limit_per_minute}/minute"
HEALTH_RATE_LIMIT = "60/minute"

VERSION = config.version
