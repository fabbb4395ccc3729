"""
TravelTime isochrone adapter: authentication, payload, response normalisation.
"""
