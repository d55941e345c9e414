import io
import os
from unittest import TestCase, mock

import avelo.main as main
from tests import mixins


class TestMain(mixins.TestMixin, TestCase):

    def test_ref(self):
        tmp = os.path.join(self.temp_dir, 'tmp')
        argv = [
            'avelo', 'ref', '--tmp', tmp, '-o', self.temp_dir, '--flank-length', '50', '--intron-type', 'collapse',
            '--salmon-overrides=--keepDuplicates', self.fasta_path, self.gtf_path
        ]
        with mock.patch('sys.argv', argv), mock.patch('avelo.ref.ref') as ref:
            main.main()
            ref.assert_called_once_with(
                self.fasta_path,
                self.gtf_path,
                self.temp_dir,
                index_dir=None,
                flank_length=50,
                intron_type='collapse',
                join_overlapping_introns=False,
                decoys=True,
                k=31,
                source='Custom',
                organism='',
                release='',
                genome='',
                n_threads=8,
                temp_dir=tmp,
                overrides={'--keepDuplicates': None},
                overwrite=False,
            )
        self.assertFalse(os.path.exists(tmp))

    def test_quant_unpaired(self):
        argv = [
            'avelo', 'quant', '--tmp', os.path.join(self.temp_dir, 'tmp'), '-i', self.temp_dir, '-g', self.gtf_path,
            '-x', '10xv3', self.fasta_path
        ]
        with mock.patch('sys.argv', argv), mock.patch('avelo.quant.quant') as quant:
            with self.assertRaises(SystemExit):
                main.main()
            quant.assert_not_called()

    def test_count_requires_features(self):
        argv = ['avelo', 'count', '--tmp', os.path.join(self.temp_dir, 'tmp'), self.temp_dir]
        with mock.patch('sys.argv', argv), mock.patch('avelo.count.count') as count:
            with self.assertRaises(SystemExit):
                main.main()
            count.assert_not_called()

    def test_velocity_exception(self):
        tmp = os.path.join(self.temp_dir, 'tmp')
        argv = ['avelo', 'velocity', '--tmp', tmp, '--mode', 'stochastic', self.gtf_path]
        with mock.patch('sys.argv', argv), \
            mock.patch('avelo.velocity.velocity', side_effect=Exception('failed')) as velocity:
            with self.assertRaises(SystemExit):
                main.main()
            velocity.assert_called_once_with(
                self.gtf_path,
                '.',
                mode='stochastic',
                n_pcs=30,
                n_neighbors=30,
                basis='umap',
                color=None,
                n_threads=8,
            )
        self.assertFalse(os.path.exists(tmp))

    def test_list(self):
        with mock.patch('sys.argv', ['avelo', '--list']), mock.patch('sys.stdout', new_callable=io.StringIO) as out:
            with self.assertRaises(SystemExit):
                main.main()
        output = out.getvalue()
        for name, flag in (('dropseq', '--dropseq'), ('10xv2', '--chromium'), ('10xv3', '--chromiumV3')):
            self.assertIn(name, output)
            self.assertIn(flag, output)

    def test_keep_tmp(self):
        tmp = os.path.join(self.temp_dir, 'tmp')
        argv = ['avelo', 'ref', '--tmp', tmp, '--keep-tmp', '-o', self.temp_dir, self.fasta_path, self.gtf_path]
        with mock.patch('sys.argv', argv), mock.patch('avelo.ref.ref') as ref:
            main.main()
            ref.assert_called_once()
        self.assertTrue(os.path.isdir(tmp))

    def test_tmp_exists(self):
        tmp = os.path.join(self.temp_dir, 'tmp')
        os.makedirs(tmp)
        argv = ['avelo', 'ref', '--tmp', tmp, '-o', self.temp_dir, self.fasta_path, self.gtf_path]
        with mock.patch('sys.argv', argv), mock.patch('avelo.ref.ref') as ref:
            with self.assertRaises(SystemExit):
                main.main()
            ref.assert_not_called()
        self.assertTrue(os.path.isdir(tmp))
