"""
High-level use cases.

``PersistenceAdapter`` owns the storage driver and the integrity rules;
``IdentityService`` builds authentication, sessions and password reset on
top of it. Application code should call these services instead of touching
the drivers directly.
"""
