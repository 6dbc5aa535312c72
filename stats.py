from models import LocationStat


def location_stats(results):
    """Per-location counters over the full ledger, busiest location first.

    Devices are deduplicated by serial; devices without a serial are all kept.
    """
    stats = {}
    seen_serials = {}
    for result in results:
        stat = stats.get(result.location)
        if stat is None:
            stat = LocationStat(location=result.location, count=0, last_scan=result.timestamp)
            stats[result.location] = stat
            seen_serials[result.location] = set()
        stat.count += 1

        device = result.device_info
        if device is not None:
            if device.serial is None:
                stat.distinct_devices.append(device)
            elif device.serial not in seen_serials[result.location]:
                seen_serials[result.location].add(device.serial)
                stat.distinct_devices.append(device)

        if result.timestamp > stat.last_scan:
            stat.last_scan = result.timestamp

    # sorted() is stable, so ties keep first-seen order
    return sorted(stats.values(), key=lambda s: s.count, reverse=True)


def summary(results):
    results = list(results)
    return {
        "total_scans": len(results),
        "total_locations": len({r.location for r in results}),
        "devices_detected": sum(1 for r in results if r.device_info is not None),
        "assets_matched": sum(1 for r in results if r.asset_info is not None),
    }
