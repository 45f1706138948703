"""
app/scheduler package marker.
"""
