"""
Value codec: parameter encoding and result decoding in text format.
"""
from pgadapter.adapters.type_conversion import EncodedParam, convert_params
from pgadapter.adapters.type_conversion import encode_params, encode_value
from pgadapter.adapters.type_mapping import DecoderRegistry

__all__ = [
    'DecoderRegistry',
    'EncodedParam',
    'convert_params',
    'encode_params',
    'encode_value',
    ]
