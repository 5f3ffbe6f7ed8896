"""Configuration for the collapse and tabulate tools."""

from dataclasses import dataclass
from typing import Optional


INPUT_FORMATS = ('lines', 'fastq', 'fasta', 'counts')


@dataclass
class CollapseConfig:
    """Configuration for barcode neighborhood collapsing.

    Attributes:
        input: Input file path ('-' for stdin)
        output_base: Prefix for the three output tables
        input_format: One of 'lines' (one barcode per line), 'fastq', 'fasta',
            or 'counts' (barcode<TAB>count table)
        min_total: Drop neighborhoods whose total count is below this (0 = keep all)
        write_headers: Write a header line at the top of each table
        show_progress: Show tqdm progress bars
        online: Assign barcodes to neighborhoods as they are read instead of
            partitioning the complete count map
    """
    input: str = '-'
    output_base: str = 'barcodes'
    input_format: str = 'lines'
    min_total: int = 0
    write_headers: bool = False
    show_progress: bool = True
    online: bool = False

    def __post_init__(self):
        if self.input_format not in INPUT_FORMATS:
            raise ValueError(f"Unknown input format: {self.input_format}")
        if self.online and self.input_format == 'counts':
            raise ValueError("Online collapsing needs individual reads, not a count table")
        if self.min_total < 0:
            raise ValueError(f"min_total must be non-negative, got {self.min_total}")

    @classmethod
    def from_args(cls, args) -> 'CollapseConfig':
        """Create config from command-line arguments."""
        return cls(
            input=args.input,
            output_base=args.output_base,
            input_format=getattr(args, 'input_format', 'lines'),
            min_total=getattr(args, 'min_total', 0),
            write_headers=getattr(args, 'headers', False),
            show_progress=not getattr(args, 'no_progress', False),
            online=getattr(args, 'online', False),
        )


@dataclass
class TabulateConfig:
    """Configuration for multi-sample tabulation.

    Attributes:
        inputs: Count table files, one per sample
        output: Output table path
        mintotal: Omit barcodes with fewer total counts across samples
        minsamples: Omit barcodes present in fewer samples
        mininsample: Omit barcodes whose highest single-sample count is lower
        omitfile: Where to list omitted barcodes (None = discard)
    """
    inputs: list
    output: str
    mintotal: Optional[int] = None
    minsamples: Optional[int] = None
    mininsample: Optional[int] = None
    omitfile: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> 'TabulateConfig':
        return cls(
            inputs=list(args.inputs),
            output=args.output,
            mintotal=args.mintotal,
            minsamples=args.minsamples,
            mininsample=args.mininsample,
            omitfile=args.omitfile,
        )
