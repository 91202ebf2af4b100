"""Shift Scheduling package.

This package is organized by feature modules (shifts, employees, recurrence,
scheduling, calendar) with a thin Flask controller layer and service/repository
layers underneath.
"""
