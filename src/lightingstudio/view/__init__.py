"""
The VIEW layer: Qt widgets only. It forwards user input to the Store and
hosts the render surfaces the controller draws into.
"""
