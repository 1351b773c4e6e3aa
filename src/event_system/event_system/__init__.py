"""Event System package.

Event registration and attendance validation, organized by feature modules
(users, events, registrations, attendance, statistics) with a thin Flask
controller layer over service/repository layers.
"""
