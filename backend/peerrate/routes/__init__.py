# Routes package init
"""
PeerRate Backend - API Routes Package
=====================================

Route Inventory:
    - users.py:    /api/users/...      profiles, pictures, search, connections,
                                       social linking
    - reviews.py:  /api/reviews/...    reviews, averages, favorites
    - files.py:    GET /api/files/...  locally stored images
    - health.py:   GET /health         dependency status

Routes stay thin: they read the request, resolve the acting user, call a
service and return its result. Errors are raised as PeerRateError
subclasses and turned into responses by the handlers in main.py.
"""
