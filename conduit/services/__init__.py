# Services package.
#
#   article_service : create/read/update/delete, favorites, listings and feeds
#   comment_service : comments nested under an article
#   user_service    : registration, profiles and follows
#
# Article and comment services are classes built over the store interfaces
# in ``conduit.stores`` so they run against SQL or in-memory stores alike.
# User service functions take an AsyncSession first; the router layer owns
# the transaction through ``get_db``.
