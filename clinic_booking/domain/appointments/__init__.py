"""Appointments domain - booking, cancellation and status changes"""
