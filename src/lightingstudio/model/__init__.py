"""
The MODEL layer contains the data structures and the session state.
It has NO knowledge of the scene graph or the GUI widgets.
It deals with the LED dataset, the panel selection and color parsing.
"""
