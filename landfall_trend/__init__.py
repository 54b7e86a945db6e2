# landfall_trend/__init__.py
