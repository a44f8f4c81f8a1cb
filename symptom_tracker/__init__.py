# -*- coding: utf-8 -*-
"""Symptom tracker backend: journal storage, trend analysis and correlation engine."""

__version__ = "0.1.0"
