import os
from unittest import TestCase, mock

import avelo.quant as quant
from avelo.utils import AveloException
from tests import mixins


class TestQuant(mixins.TestMixin, TestCase):

    def test_salmon_alevin(self):
        out_dir = os.path.join(self.temp_dir, 'quant')
        with mock.patch('avelo.quant.utils.get_salmon_binary_path', return_value='path/to/salmon'), \
            mock.patch('avelo.quant.utils.run_executable') as run_executable:
            result = quant.salmon_alevin(
                ['R1_1.fastq.gz', 'R2_1.fastq.gz', 'R1_2.fastq.gz', 'R2_2.fastq.gz'],
                'path/to/index',
                'path/to/tx2gene',
                out_dir,
                self.technology,
                expect_cells=1000,
                n_threads=4,
                overrides={'--numCellBootstraps': '10'},
            )
            run_executable.assert_called_once_with([
                'path/to/salmon',
                'alevin',
                '-l',
                'ISR',
                '-i',
                'path/to/index',
                '-1',
                'R1_1.fastq.gz',
                'R1_2.fastq.gz',
                '-2',
                'R2_1.fastq.gz',
                'R2_2.fastq.gz',
                '-o',
                out_dir,
                '-p',
                4,
                '--tgMap',
                'path/to/tx2gene',
                '--chromiumV3',
                '--dumpFeatures',
                '--dumpMtx',
                '--expectCells',
                1000,
                '--numCellBootstraps',
                '10',
            ])
        self.assertEqual(os.path.join(out_dir, 'alevin', 'quants_mat.mtx.gz'), result['matrix'])
        self.assertEqual(os.path.join(out_dir, 'aux_info', 'meta_info.json'), result['meta_info'])

    def test_salmon_alevin_whitelist(self):
        with mock.patch('avelo.quant.utils.get_salmon_binary_path', return_value='path/to/salmon'), \
            mock.patch('avelo.quant.utils.run_executable') as run_executable:
            quant.salmon_alevin(
                ['R1.fastq.gz', 'R2.fastq.gz'],
                'path/to/index',
                'path/to/tx2gene',
                'path/to/out',
                self.technology,
                whitelist_path='path/to/whitelist',
            )
            command = run_executable.call_args[0][0]
            self.assertEqual('path/to/whitelist', command[command.index('--whitelist') + 1])
            self.assertNotIn('--expectCells', command)

    def test_quant_unpaired(self):
        with self.assertRaises(AveloException):
            quant.quant(['R1.fastq.gz'], 'path/to/index', 'path/to/tx2gene', self.temp_dir, self.technology)

    def test_quant(self):
        out_dir = os.path.join(self.temp_dir, 'quant')
        with mock.patch('avelo.quant.utils.get_salmon_binary_path', return_value='path/to/salmon'), \
            mock.patch('avelo.quant.utils.get_salmon_version', return_value='1.10.1'), \
            mock.patch('avelo.quant.utils.check_memory'), \
            mock.patch('avelo.quant.salmon_alevin') as salmon_alevin:
            result = quant.quant(
                ['R1.fastq.gz', 'R2.fastq.gz'], 'path/to/index', 'path/to/tx2gene', out_dir, self.technology
            )
            self.assertEqual(salmon_alevin.return_value, result)
            salmon_alevin.assert_called_once_with(
                ['R1.fastq.gz', 'R2.fastq.gz'],
                'path/to/index',
                'path/to/tx2gene',
                out_dir,
                self.technology,
                expect_cells=None,
                whitelist_path=None,
                n_threads=8,
                overrides=None,
            )
        self.assertTrue(any(name.startswith('run_info') for name in os.listdir(out_dir)))

    def test_quant_skip(self):
        mixins.write_alevin(self.temp_dir, ['AAAC'], ['T1'], [[1]], seq_hash='HASH')
        with mock.patch('avelo.quant.utils.check_memory'), \
            mock.patch('avelo.quant.salmon_alevin') as salmon_alevin:
            result = quant.quant(
                ['R1.fastq.gz', 'R2.fastq.gz'], 'path/to/index', 'path/to/tx2gene', self.temp_dir, self.technology
            )
            salmon_alevin.assert_not_called()
        self.assertEqual(quant.get_quant_paths(self.temp_dir), result)
