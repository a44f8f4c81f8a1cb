# -*- coding: utf-8 -*-
"""
Journal module

Catalog records (foods, triggers, medications) and the events logged against them.
"""
