"""Clinic appointment-slot booking and schedule consistency service"""
