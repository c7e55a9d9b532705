from manual_rag.providers.lookup.vehicle_databases_provider import VehicleDatabasesProvider

__all__ = ["VehicleDatabasesProvider"]
