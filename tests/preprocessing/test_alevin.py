import os
from unittest import TestCase

import numpy as np

import avelo.preprocessing.alevin as alevin
from avelo.utils import AveloException

from .. import mixins


class TestAlevin(mixins.TestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.barcodes = ['AAAC', 'CCCG', 'GGGT']
        self.features = ['T1', 'T2', 'G1-I', 'G1-I1', 'T3', 'G2-I', 'T4', 'T5', 'T6']
        self.matrix = np.array([
            [1, 0, 2, 0, 0, 3, 0, 0, 1],
            [0, 0, 0, 0, 0, 0, 0, 0, 0],
            [4, 5, 0, 1.5, 0, 0, 0, 2, 0],
        ])

    def test_get_alevin_paths(self):
        paths = alevin.get_alevin_paths('out')
        self.assertEqual(os.path.join('out', 'alevin', 'quants_mat.mtx.gz'), paths['mtx'])
        self.assertEqual(os.path.join('out', 'alevin', 'quants_mat_rows.txt'), paths['barcodes'])

    def test_read_eds(self):
        mixins.write_alevin(self.temp_dir, self.barcodes, self.features, self.matrix, mtx=False, eds=True)
        matrix = alevin.read_eds(os.path.join(self.temp_dir, 'alevin', 'quants_mat.gz'), 3, 9)
        self.assertEqual((3, 9), matrix.shape)
        np.testing.assert_array_equal(self.matrix, matrix.toarray())

    def test_read_eds_truncated(self):
        mixins.write_alevin(self.temp_dir, self.barcodes, self.features, self.matrix, mtx=False, eds=True)
        with self.assertRaises(AveloException):
            alevin.read_eds(os.path.join(self.temp_dir, 'alevin', 'quants_mat.gz'), 4, 9)

    def test_read_alevin_mtx(self):
        mixins.write_alevin(self.temp_dir, self.barcodes, self.features, self.matrix)
        adata = alevin.read_alevin(self.temp_dir)
        self.assertEqual(self.barcodes, list(adata.obs_names))
        self.assertEqual(self.features, list(adata.var_names))
        self.assertEqual('barcode', adata.obs.index.name)
        self.assertEqual('feature_id', adata.var.index.name)
        np.testing.assert_array_equal(self.matrix, adata.X.toarray())

    def test_read_alevin_eds(self):
        mixins.write_alevin(self.temp_dir, self.barcodes, self.features, self.matrix, mtx=False, eds=True)
        adata = alevin.read_alevin(self.temp_dir)
        np.testing.assert_array_equal(self.matrix, adata.X.toarray())

    def test_read_alevin_missing_matrix(self):
        mixins.write_alevin(self.temp_dir, self.barcodes, self.features, self.matrix, mtx=False)
        with self.assertRaises(AveloException):
            alevin.read_alevin(self.temp_dir)

    def test_read_alevin_shape_mismatch(self):
        mixins.write_alevin(self.temp_dir, self.barcodes[:2], self.features, self.matrix)
        with self.assertRaises(AveloException):
            alevin.read_alevin(self.temp_dir)
