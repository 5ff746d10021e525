# Routes package init
"""
Habit Tracker Backend - API Routes Package
==========================================

Route Inventory:
    - health.py:  GET  /api/health
    - auth.py:    POST /api/auth/register, /login, /refresh; GET /api/auth/me
    - habits.py:  /api/habits CRUD and /api/habits/{id}/logs
    - admin.py:   GET  /api/admin/pool (admin role)

Routes stay thin: parse the request, call a service with the pool from
get_pool, shape the response. Business rules live in services.
"""
