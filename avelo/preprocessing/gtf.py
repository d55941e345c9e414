import bisect
import re
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .. import utils
from ..logging import logger


class GTF:
    """Utility class to easily read and parse GTF files.

    :param gtf_path: path to GTF file, which may be gzipped
    :type gtf_path: str
    """
    PARSER = re.compile(
        r'''
        ^(?P<seqname>.+?)\s+    # chromosome
        .*?\t                   # source
        (?P<feature>.+?)\s+     # feature: transcript, exon, etc.
        (?P<start>[0-9]+?)\s+   # start position (1-indexed)
        (?P<end>[0-9]+?)\s+     # end position (1-indexed, inclusive)
        .*?\s+                  # score
        (?P<strand>\+|-|\.)\s+  # +, -, . indicating strand
        .*?\s+                  # frame
        (?P<group>.*)           # groups
    ''', re.VERBOSE
    )
    GROUP_PARSER = re.compile(r'(?P<key>\S+?)\s*"(?P<value>.+?)"')

    def __init__(self, gtf_path: str):
        self.gtf_path = gtf_path

    @staticmethod
    def parse_entry(line: str) -> Optional[dict]:
        """Parse a single GTF entry.

        :param line: a line in the GTF file
        :type line: str

        :return: parsed GTF information, or `None` if the line could not be parsed
        :rtype: dict
        """
        match = GTF.PARSER.match(line)
        if match:
            groupdict = match.groupdict()
            groupdict['start'] = int(groupdict['start'])
            groupdict['end'] = int(groupdict['end'])
            groupdict['group'] = dict(GTF.GROUP_PARSER.findall(groupdict.get('group', '')))
            if not groupdict['group']:
                logger.warning(f'Failed to parse GTF attributes of entry: {line}')

            return groupdict
        logger.warning(f'Failed to parse GTF entry: {line}')
        return None

    def entries(self) -> Iterator[dict]:
        """Generator that yields one parsed GTF entry at a time. Entries that
        fail to parse are skipped.

        :return: a generator that yields a dict of the GTF entry
        :rtype: generator
        """
        with utils.open_as_text(self.gtf_path, 'r') as f:
            for line in f:
                if line.startswith('#') or line.isspace():
                    continue

                entry = GTF.parse_entry(line)
                if entry is not None:
                    yield entry


class Segment:
    """Class to represent an integer interval segment, zero-indexed and
    end-exclusive.

    :param start: start position
    :type start: int
    :param end: end position
    :type end: int
    """

    def __init__(self, start: int, end: int):
        assert end > start
        self._start = start
        self._end = end

    @property
    def start(self) -> int:
        return self._start

    @property
    def end(self) -> int:
        return self._end

    def is_exclusive(self, segment: 'Segment') -> bool:
        return self.end <= segment.start or self.start >= segment.end

    def is_overlapping(self, segment: 'Segment') -> bool:
        return not self.is_exclusive(segment)

    def flank(self, length: int, minimum: int = 0, maximum: Optional[int] = None) -> Optional['Segment']:
        """Extend the segment by `length` on both sides.

        :param length: number of positions to add to each side
        :type length: int
        :param minimum: smallest allowed start position, defaults to `0`
        :type minimum: int, optional
        :param maximum: largest allowed end position, defaults to `None` (no limit)
        :type maximum: int, optional

        :return: new flanked segment, or `None` if nothing remains after clipping
        :rtype: Segment
        """
        start = max(minimum, self.start - length)
        end = self.end + length
        if maximum is not None:
            end = min(maximum, end)
        return Segment(start, end) if end > start else None

    def __iter__(self):
        return iter((self.start, self.end))

    def __hash__(self):
        return hash((self.start, self.end))

    def __eq__(self, other):
        return (self.start, self.end) == (other.start, other.end)

    def __lt__(self, other):
        return (self.start, self.end) < (other.start, other.end)

    def __gt__(self, other):
        return (self.start, self.end) > (other.start, other.end)

    def __str__(self):
        return str((self.start, self.end))

    def __repr__(self):
        return str(self)


class SegmentCollection:
    """Class to represent a sorted collection of non-overlapping integer interval
    segments, zero-indexed. Overlapping segments are merged on insertion.

    :param segments: list of initial segments, defaults to `None`
    :type segments: list, optional
    """

    def __init__(self, segments: Optional[Iterable[Segment]] = None):
        self.segments = sorted(segments) if segments else []
        if self.segments:
            self.collapse()

    @property
    def start(self) -> int:
        return self.segments[0].start if self.segments else -1

    @property
    def end(self) -> int:
        return self.segments[-1].end if self.segments else -1

    def add_segment(self, segment: Segment):
        bisect.insort_left(self.segments, segment)
        self.collapse()

    def __iter__(self):
        return iter(self.segments)

    def __getitem__(self, i):
        return self.segments[i]

    def __len__(self):
        return len(self.segments)

    def __bool__(self):
        return bool(self.segments)

    def collapse(self):
        segments = []
        combined = None
        for segment in self.segments:
            if combined is None:
                combined = segment
                continue
            if combined.is_overlapping(segment):
                combined = Segment(min(combined.start, segment.start), max(combined.end, segment.end))
            else:
                segments.append(combined)
                combined = segment
        if combined is not None:
            segments.append(combined)

        self.segments = segments

    def gaps(self) -> List[Segment]:
        """Segments between consecutive segments of this collection.
        """
        return [
            Segment(left.end, right.start)
            for left, right in zip(self.segments, self.segments[1:])
            if right.start > left.end
        ]

    @classmethod
    def from_collections(cls, *collections: 'SegmentCollection') -> 'SegmentCollection':
        segments = []
        for collection in collections:
            segments.extend(collection.segments)
        return cls(segments=segments)

    def __str__(self):
        return f'SegmentCollection {str(self.segments)}'

    def __repr__(self):
        return str(self)

    def __eq__(self, other):
        return self.segments == other.segments


def parse_gtf(gtf_path: str) -> Tuple[Dict[str, dict], Dict[str, dict]]:
    """Parse GTF for gene and transcript informations.

    Gene information contains the keys `segment`, `chr`, `strand`, `gene_name`
    and `transcripts`. Transcript information contains the keys `gene_id`,
    `chr`, `segment`, `strand`, `exons` and `introns`, where introns are the
    gaps between consecutive exons.

    :param gtf_path: path to GTF
    :type gtf_path: str

    :return: (gene information, transcript information)
    :rtype: tuple
    """
    gtf = GTF(gtf_path)

    gene_infos = {}
    transcript_exons = {}
    transcript_infos = {}
    count = 0
    for gtf_entry in gtf.entries():
        count += 1

        start = gtf_entry['start'] - 1
        end = gtf_entry['end']
        strand = gtf_entry['strand']
        chrom = gtf_entry['seqname']

        # Extract gene info from gene and transcript features
        if gtf_entry['feature'] in ('gene', 'transcript'):
            gene_id = gtf_entry['group'].get('gene_id')
            if gene_id is None:
                logger.warning(f'GTF {gtf_entry["feature"]} entry at {chrom}:{start + 1} has no gene_id')
                continue
            gene_name = gtf_entry['group'].get('gene_name')

            gene_info = gene_infos.setdefault(
                gene_id, {
                    'segment': Segment(start, end),
                    'chr': chrom,
                    'strand': strand,
                    'gene_name': gene_name,
                    'transcripts': []
                }
            )
            segment = gene_info['segment']
            gene_info['segment'] = Segment(min(segment.start, start), max(segment.end, end))
            gene_info['gene_name'] = gene_name or gene_info['gene_name']

            if gtf_entry['feature'] == 'transcript':
                transcript_id = gtf_entry['group']['transcript_id']
                gene_info['transcripts'].append(transcript_id)

                if transcript_id in transcript_infos:
                    logger.warning(
                        f'Found multiple GTF entries for transcript {transcript_id}. Only the first will be used.'
                    )
                    continue
                transcript_infos[transcript_id] = {
                    'gene_id': gene_id,
                    'chr': chrom,
                    'segment': Segment(start, end),
                    'strand': strand
                }

        elif gtf_entry['feature'] == 'exon':
            transcript_id = gtf_entry['group'].get('transcript_id')
            if transcript_id is None:
                continue
            transcript_exons.setdefault(transcript_id, SegmentCollection()).add_segment(Segment(start, end))

    # Clean gene infos so that they link to only transcripts existing in transcript_infos
    for gene_id, attributes in gene_infos.items():
        cleaned = sorted(set(t for t in attributes['transcripts'] if t in transcript_infos))
        attributes['transcripts'] = cleaned
        if not cleaned:
            logger.warning(
                f'Gene `{gene_id}` has no transcripts. '
                f'The entire gene will be marked as a transcript with ID `{gene_id}` and an exon.'
            )
            attributes['transcripts'].append(gene_id)
            transcript_infos[gene_id] = {
                'gene_id': gene_id,
                'chr': attributes['chr'],
                'segment': attributes['segment'],
                'strand': attributes['strand']
            }
            transcript_exons[gene_id] = SegmentCollection(segments=[attributes['segment']])

    for transcript_id, attributes in transcript_infos.items():
        exons = transcript_exons.get(transcript_id, SegmentCollection())
        if not exons:
            logger.warning(
                f'Gene `{attributes["gene_id"]}` transcript `{transcript_id}` has no exons. '
                'This transcript will be ignored.'
            )
        attributes['exons'] = exons
        attributes['introns'] = exons.gaps()

    logger.debug(f'Parsed {len(gene_infos)} genes and {len(transcript_infos)} transcripts from {count} GTF entries')
    return gene_infos, transcript_infos
