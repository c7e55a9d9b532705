from manual_rag.providers.vin.nhtsa_vin_decoder import NHTSAVinDecoder

__all__ = ["NHTSAVinDecoder"]
