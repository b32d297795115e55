# Routers module for the festival portal API
from festival_portal.routers import sales
from festival_portal.routers import economy
from festival_portal.routers import exports
from festival_portal.routers import sync
from festival_portal.routers import sponsors
