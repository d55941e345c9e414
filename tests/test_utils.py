import gzip
import os
from unittest import TestCase, mock

import avelo.utils as utils
from tests import mixins


class TestUtils(mixins.TestMixin, TestCase):

    def test_get_salmon_binary_path_env(self):
        salmon_path = os.path.join(self.temp_dir, 'salmon')
        open(salmon_path, 'w').close()
        with mock.patch.dict(os.environ, {'AVELO_SALMON': salmon_path}):
            self.assertEqual(salmon_path, utils.get_salmon_binary_path())

    def test_get_salmon_binary_path_env_missing(self):
        with mock.patch.dict(os.environ, {'AVELO_SALMON': os.path.join(self.temp_dir, 'salmon')}):
            with self.assertRaises(utils.UnsupportedOSException):
                utils.get_salmon_binary_path()

    def test_get_salmon_binary_path_which(self):
        with mock.patch.dict(os.environ, {'AVELO_SALMON': ''}), \
            mock.patch('avelo.utils.config.BINS_DIR', self.temp_dir), \
            mock.patch('avelo.utils.shutil.which', return_value='/usr/bin/salmon'):
            self.assertEqual('/usr/bin/salmon', utils.get_salmon_binary_path())

    def test_get_salmon_binary_path_not_found(self):
        with mock.patch.dict(os.environ, {'AVELO_SALMON': ''}), \
            mock.patch('avelo.utils.config.BINS_DIR', self.temp_dir), \
            mock.patch('avelo.utils.shutil.which', return_value=None):
            with self.assertRaises(utils.UnsupportedOSException):
                utils.get_salmon_binary_path()

    def test_get_salmon_version(self):
        with mock.patch('avelo.utils.get_salmon_binary_path', return_value='path/to/salmon'), \
            mock.patch('avelo.utils.run_executable') as run_executable:
            run_executable.return_value = (mock.MagicMock(), 'salmon 1.10.1\n', '')
            self.assertEqual('1.10.1', utils.get_salmon_version())
            run_executable.assert_called_once_with(['path/to/salmon', '--version'], quiet=True)

    def test_combine_arguments(self):
        args = {'--arg1': 'value1', '--arg2': ['value2', 'value3'], '--arg3': ['value4'], '--arg4': 'value5'}
        additional = {'--arg1': 'value6', '--arg2': ['value7'], '--arg3': 'value8', '--arg5': 'value9'}
        self.assertEqual({
            '--arg1': 'value6',
            '--arg2': ['value2', 'value3', 'value7'],
            '--arg3': 'value8',
            '--arg4': 'value5',
            '--arg5': 'value9'
        }, utils.combine_arguments(args, additional))

    def test_arguments_to_list(self):
        args = {'--arg1': 'value1', '--arg2': ['value2', 'value3'], '--flag': None}
        self.assertEqual(['--arg1', 'value1', '--arg2', 'value2', 'value3', '--flag'], utils.arguments_to_list(args))

    def test_parse_overrides(self):
        self.assertEqual({
            '--incompatPrior': '0.0',
            '--validateMappings': None,
            '--freqThreshold': '-3',
            '-x': ['a', 'b'],
        }, utils.parse_overrides('"--incompatPrior 0.0 --validateMappings --freqThreshold -3 -x a b"'))

    def test_parse_overrides_empty(self):
        self.assertEqual({}, utils.parse_overrides(None))
        self.assertEqual({}, utils.parse_overrides(''))

    def test_parse_overrides_invalid(self):
        with self.assertRaises(utils.AveloException):
            utils.parse_overrides('value --arg')

    def test_get_available_memory(self):
        with mock.patch('avelo.utils.psutil.virtual_memory') as vm:
            self.assertEqual(vm.return_value.available, utils.get_available_memory())

    def test_check_memory(self):
        with mock.patch('avelo.utils.get_available_memory', return_value=1024), \
            mock.patch('avelo.utils.logger') as logger:
            utils.check_memory()
            logger.warning.assert_called_once()

    def test_read_table_column(self):
        path = os.path.join(self.temp_dir, 'table.txt.gz')
        with gzip.open(path, 'wt') as f:
            f.write('header\tvalue\nA\t1\n\nB\t2\n')
        self.assertEqual(['header', 'A', 'B'], utils.read_table_column(path))
        self.assertEqual(['A', 'B'], utils.read_table_column(path, skip_header=True))
