import importlib

import pytest


def test_viz3d_imports_without_optional_dependency():
    # The visualization module must be importable even if py3Dmol is missing.
    viz = importlib.import_module('voroquery.viz3d')
    assert hasattr(viz, 'view_cells')


def test_viz3d_requires_py3dmol_when_called(monkeypatch):
    viz = importlib.import_module('voroquery.viz3d')
    monkeypatch.setattr(viz, '_py3Dmol', None, raising=False)
    with pytest.raises(ImportError, match='voroquery\\[viz\\]'):
        viz.view_cells([])
