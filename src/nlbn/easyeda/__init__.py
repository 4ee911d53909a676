"""EasyEDA data access and shape parsing."""
