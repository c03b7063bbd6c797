"""Pipeline services: parsing, matching, deep intelligence and scan orchestration."""
