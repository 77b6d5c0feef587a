import pandas as pd
import pytest
from pgadapter.cursor import ResultColumn
from pgadapter.options import iterdict_data_loader, pandas_numpy_data_loader
from pgadapter.options import pandas_pyarrow_data_loader
from pgadapter.types import INT8_OID, TEXT_OID

COLUMNS = [ResultColumn('name', TEXT_OID), ResultColumn('age', INT8_OID)]

DATA = [{'name': 'Alice', 'age': 30}, {'name': 'Bob', 'age': 25}]


def test_iterdict_data_loader():
    assert iterdict_data_loader(iter(DATA), COLUMNS) == DATA
    assert iterdict_data_loader([], COLUMNS) == []


def test_pandas_numpy_data_loader():
    """Test pandas_numpy_data_loader function"""
    result = pandas_numpy_data_loader(DATA, COLUMNS)
    assert isinstance(result, pd.DataFrame)
    assert list(result.columns) == ['name', 'age']
    assert len(result) == 2
    assert result.iloc[0]['name'] == 'Alice'
    assert result.iloc[1]['age'] == 25
    assert result.attrs['column_oids'] == {'name': TEXT_OID, 'age': INT8_OID}


def test_pandas_pyarrow_data_loader():
    """Test pandas_pyarrow_data_loader function"""
    result = pandas_pyarrow_data_loader(DATA, COLUMNS)
    assert isinstance(result, pd.DataFrame)
    assert list(result.columns) == ['name', 'age']
    assert isinstance(result['age'].dtype, pd.ArrowDtype)
    assert result.iloc[0]['name'] == 'Alice'
    assert result.iloc[1]['age'] == 25


@pytest.mark.parametrize('loader', [pandas_numpy_data_loader, pandas_pyarrow_data_loader])
def test_empty_result_keeps_columns(loader):
    result = loader([], COLUMNS)
    assert list(result.columns) == ['name', 'age']
    assert len(result) == 0
    assert result.attrs['column_oids']['age'] == INT8_OID


if __name__ == '__main__':
    __import__('pytest').main([__file__])
