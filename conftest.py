
import os
import sys

sys.path[:0] = [os.path.join(os.path.dirname(__file__), 'python')]
