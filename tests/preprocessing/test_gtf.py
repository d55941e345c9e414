from unittest import TestCase

import avelo.preprocessing.gtf as gtf

from .. import mixins


class TestGtf(mixins.TestMixin, TestCase):

    def test_parser(self):
        line = 'chr1\ttest\texon\t21\t30\t.\t+\t.\tgene_id "G1"; transcript_id "T1"; exon_number "2";'
        match = gtf.GTF.PARSER.match(line)
        self.assertIsNotNone(match)
        self.assertEqual({
            'seqname': 'chr1',
            'feature': 'exon',
            'start': '21',
            'end': '30',
            'strand': '+',
            'group': 'gene_id "G1"; transcript_id "T1"; exon_number "2";'
        }, match.groupdict())

    def test_group_parser(self):
        group = 'gene_id "ENSMUSG00000102693";'
        match = gtf.GTF.GROUP_PARSER.match(group)
        self.assertIsNotNone(match)
        self.assertEqual({'key': 'gene_id', 'value': 'ENSMUSG00000102693'}, match.groupdict())

    def test_parse_entry(self):
        line = '2\thavana\tgene\t2\t3\t.\t+\t.\tgene_id "ENSMUSG00000102693"; gene_version "1"; gene_name "4933401J01Rik"; gene_source "havana"; gene_biotype "TEC";'  # noqa
        self.assertEqual({
            'seqname': '2',
            'feature': 'gene',
            'start': 2,
            'end': 3,
            'strand': '+',
            'group': {
                'gene_id': 'ENSMUSG00000102693',
                'gene_version': '1',
                'gene_name': '4933401J01Rik',
                'gene_source': 'havana',
                'gene_biotype': 'TEC'
            }
        }, gtf.GTF.parse_entry(line))

    def test_parse_entry_invalid(self):
        self.assertIsNone(gtf.GTF.parse_entry('not a gtf line'))

    def test_entries(self):
        g = gtf.GTF(self.gtf_path)
        self.assertEqual(12, len(list(g.entries())))

    def test_parse_gtf(self):
        gene_infos, transcript_infos = gtf.parse_gtf(self.gtf_path)
        self.assertEqual({
            'G1': {
                'transcripts': ['T1', 'T2'],
                'segment': gtf.Segment(0, 50),
                'chr': 'chr1',
                'strand': '+',
                'gene_name': 'Gene1'
            },
            'G2': {
                'transcripts': ['T3'],
                'segment': gtf.Segment(51, 60),
                'chr': 'chr1',
                'strand': '-',
                'gene_name': 'Gene2'
            },
        }, gene_infos)
        self.assertEqual({'T1', 'T2', 'T3'}, set(transcript_infos))
        self.assertEqual(
            gtf.SegmentCollection([gtf.Segment(0, 10), gtf.Segment(20, 30),
                                   gtf.Segment(40, 50)]), transcript_infos['T1']['exons']
        )
        self.assertEqual([gtf.Segment(10, 20), gtf.Segment(30, 40)], transcript_infos['T1']['introns'])
        self.assertEqual([gtf.Segment(10, 40)], transcript_infos['T2']['introns'])
        self.assertEqual([gtf.Segment(55, 57)], transcript_infos['T3']['introns'])
        self.assertEqual('G2', transcript_infos['T3']['gene_id'])

    def test_parse_gtf_gene_without_transcripts(self):
        gtf_path = f'{self.temp_dir}/gene_only.gtf'
        with open(gtf_path, 'w') as f:
            f.write('chr2\ttest\tgene\t3\t12\t.\t+\t.\tgene_id "G3";\n')
        gene_infos, transcript_infos = gtf.parse_gtf(gtf_path)
        self.assertEqual(['G3'], gene_infos['G3']['transcripts'])
        self.assertEqual(gtf.SegmentCollection([gtf.Segment(2, 12)]), transcript_infos['G3']['exons'])
        self.assertEqual([], transcript_infos['G3']['introns'])


class TestSegment(mixins.TestMixin, TestCase):

    def test_init(self):
        segment = gtf.Segment(3, 4)
        self.assertEqual(3, segment.start)
        self.assertEqual(4, segment.end)
        with self.assertRaises(AssertionError):
            gtf.Segment(1, 0)

    def test_is_overlapping(self):
        segment1 = gtf.Segment(0, 10)
        segment2 = gtf.Segment(5, 10)
        segment3 = gtf.Segment(10, 20)
        self.assertFalse(segment1.is_overlapping(segment3))
        self.assertTrue(segment1.is_overlapping(segment2))

    def test_flank(self):
        segment = gtf.Segment(10, 20)
        self.assertEqual(gtf.Segment(8, 22), segment.flank(2))
        self.assertEqual(gtf.Segment(0, 25), segment.flank(15, maximum=25))
        self.assertIsNone(segment.flank(2, maximum=5))

    def test_hash(self):
        self.assertEqual({gtf.Segment(0, 10)}, {gtf.Segment(0, 10), gtf.Segment(0, 10)})

    def test_comparison(self):
        segment1 = gtf.Segment(0, 10)
        segment2 = gtf.Segment(0, 10)
        segment3 = gtf.Segment(5, 10)
        segment4 = gtf.Segment(0, 5)
        self.assertTrue(segment1 == segment2)
        self.assertTrue(segment1 < segment3)
        self.assertTrue(segment1 > segment4)


class TestSegmentCollection(mixins.TestMixin, TestCase):

    def test_init(self):
        segment1 = gtf.Segment(0, 10)
        segment2 = gtf.Segment(5, 15)
        collection = gtf.SegmentCollection(segments=[segment1, segment2])
        self.assertEqual(0, collection.start)
        self.assertEqual(15, collection.end)
        self.assertEqual(1, len(collection))
        self.assertEqual(gtf.Segment(0, 15), collection.segments[0])

    def test_add_segment(self):
        segment1 = gtf.Segment(0, 5)
        segment2 = gtf.Segment(5, 10)
        segment3 = gtf.Segment(10, 15)
        collection = gtf.SegmentCollection(segments=[segment1, segment3])
        collection.add_segment(segment2)
        self.assertEqual(3, len(collection))
        self.assertEqual([segment1, segment2, segment3], collection.segments)

    def test_gaps(self):
        collection = gtf.SegmentCollection(segments=[gtf.Segment(0, 5), gtf.Segment(5, 8), gtf.Segment(10, 12)])
        self.assertEqual([gtf.Segment(8, 10)], collection.gaps())
        self.assertEqual([], gtf.SegmentCollection().gaps())

    def test_from_collections(self):
        collection1 = gtf.SegmentCollection(segments=[gtf.Segment(0, 5), gtf.Segment(20, 25)])
        collection2 = gtf.SegmentCollection(segments=[gtf.Segment(3, 8)])
        self.assertEqual(
            gtf.SegmentCollection(segments=[gtf.Segment(0, 8), gtf.Segment(20, 25)]),
            gtf.SegmentCollection.from_collections(collection1, collection2)
        )
