import ee


def initialize_ee(project=None):
    """Earth Engine Authorization and Initialization"""
    try:
        ee.Initialize(project=project)
    except Exception as e:
        print(f"Earth Engine init failed ({e}). Starting authentication...")
        ee.Authenticate()
        ee.Initialize(project=project)


def check_auth(project=None):
    """
    Checks whether stored Earth Engine credentials are usable.
    Does not prompt the user.
    """
    try:
        ee.Initialize(project=project)
        return True
    except Exception:
        return False
