"""
The CONTROLLER layer turns the model into pictures.
It samples the fixture, drives the terrain, lights and sun, and runs the
post-processing chain. It talks to PyVista but never to Qt widgets.
"""
