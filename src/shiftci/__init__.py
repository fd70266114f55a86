# ShiftCI: Jenkins -> GitLab CI migration rule engine
__version__ = "0.1.0"
