import os
import sys

# Let test modules import the shared fakes
sys.path.insert(0, os.path.dirname(__file__))
