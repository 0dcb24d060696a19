from typing import Dict


def init_metrics() -> Dict[str, int | float | bool]:
    return {
        'levels_generated': 0,
        'level_retries': 0,
        'rooms_placed': 0,
        'corridors_routed': 0,
        'routing_failures': 0,
        'bridges_inserted': 0,
        'doors_created': 0,
        'secret_doors': 0,
        'stairs_placed': 0,
        'stair_regenerations': 0,
        'partition_failures': 0,
        'wfc_fallbacks': 0,
        'wfc_backtracks': 0,
        'runtime_ms': 0.0,
    }
