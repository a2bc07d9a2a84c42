"""Shared validators and response helpers"""
