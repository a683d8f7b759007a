"""
ZZLE-SYNTH: Program Synthesis for a Stack-Based Robot Puzzle Language

Given a board, a robot pose and a per-function instruction budget, search for
a program that collects every star without the robot dying.
"""

__version__ = "0.1.0"
