# Services package init
"""
PeerRate Backend - Services Layer
=================================

What:  Business logic between the routes (HTTP) and the database.
How:   Services take an AsyncSession per call; long-lived collaborators
       (cache, object storage, social client) are injected once at startup
       and the service instances live on app.state.

Service Inventory:
    - ObjectStorage (abstract): where profile pictures are written
    - S3ObjectStorage / LocalObjectStorage: concrete storage backends
    - RatingCache: Redis cache of per-user average ratings
    - SocialProfileClient: resolves provider tokens to account emails
    - ReviewService: reviews, favorites, average ratings
    - UserService: profiles, pictures, search, connections, social linking
"""
