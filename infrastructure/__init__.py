"""Infrastructure layer — operational concerns for the spectrogram engine.

Modules:
    metrics     Prometheus metrics registry for analysis and draw tasks.
"""
