"""
Adaptive Learning Engine
Progression gating, knowledge tracking and personalization services
"""
