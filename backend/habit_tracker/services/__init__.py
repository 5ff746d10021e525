# Services package init
"""
Habit Tracker Backend - Business Logic Services
===============================================

    auth_service.py   password hashing, JWT issue / verify
    user_service.py   registration, login, user lookup
    habit_service.py  habits and their daily logs, scoped to one user

Services are stateless singletons. The connection pool is passed into every
call, so routes and tests decide which pool a service works against.
"""
