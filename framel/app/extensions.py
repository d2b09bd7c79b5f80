from flask_cors import CORS

from framel.app.clients.api import RemoteApi
from framel.app.clients.identity import IdentityProvider

# Singletons (initialized in app factory)
api = RemoteApi()
identity = IdentityProvider()
cors = CORS()
