"""Command line interface for bagsmith."""
import logging
import sys
from pathlib import Path
from typing import Optional
import click

from bagsmith.config import algorithms_from_env, include_hidden_from_env, workers_from_env
from bagsmith.creator import BagCreator
from bagsmith.errors import BagError, UnsupportedAlgorithmError
from bagsmith.reader import is_bag, read_bag
from bagsmith.verifier import BagVerifier
from bagsmith.walk import WalkPolicy, count_files_and_size

EXISTING_DIRECTORY = click.Path(exists=True, file_okay=False, path_type=Path)


def from_env(read):
    """Call one of the `config` readers, reporting a malformed variable as a usage error."""
    try:
        return read()
    except ValueError as error:
        raise click.UsageError(str(error))


@click.group()
@click.option('-v', '--verbose/--no-verbose', default=False, help='Print more information about the process')
def cli(verbose: bool):
    """Create and verify BagIt bags."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


@cli.command()
@click.option('--dot-bagit/--no-dot-bagit', default=False, help='Leave payload in place and keep metadata in a .bagit directory')
@click.option('-a', '--algorithm', 'algorithms', multiple=True, help='Checksum algorithm, can be repeated')
@click.option('--include-hidden/--no-include-hidden', default=None, help='Include hidden files in the bag')
@click.option('-w', '--workers', type=click.IntRange(min=1), default=None, help='Number of threads hashing files')
@click.argument('directory', type=EXISTING_DIRECTORY)
def create(
  dot_bagit: bool,
  algorithms: tuple[str, ...],
  include_hidden: Optional[bool],
  workers: Optional[int],
  directory: Path,
):
    """Turn DIRECTORY into a bag in place."""
    if include_hidden is None:
        include_hidden = from_env(include_hidden_from_env)
    try:
        creator = BagCreator(algorithms or from_env(algorithms_from_env), workers=workers or from_env(workers_from_env))
    except UnsupportedAlgorithmError as error:
        raise click.BadParameter(str(error), param_hint="'--algorithm'")

    if dot_bagit:
        bag = creator.create_dot_bagit(directory, include_hidden=include_hidden)
    else:
        bag = creator.bag_in_place(directory, include_hidden=include_hidden)

    file_count = len(bag.payload_manifests[0])
    algorithm_names = ", ".join(hasher.name for hasher in creator.hashers.values())
    click.echo(f"Created version {bag.version} bag in '{directory}' with {file_count} payload files ({algorithm_names})")


@cli.command()
@click.option('--fast/--no-fast', default=False, help='Only check that files and manifests match up, skip checksums')
@click.option('--tag-manifests/--no-tag-manifests', default=True, help='Also check the tag manifests')
@click.option('--include-hidden/--no-include-hidden', default=None, help='Expect hidden payload files in the manifests')
@click.option('-w', '--workers', type=click.IntRange(min=1), default=None, help='Number of threads hashing files')
@click.argument('directory', type=EXISTING_DIRECTORY)
def verify(
  fast: bool,
  tag_manifests: bool,
  include_hidden: Optional[bool],
  workers: Optional[int],
  directory: Path,
):
    """Check that the bag in DIRECTORY matches its manifests."""
    if include_hidden is None:
        include_hidden = from_env(include_hidden_from_env)
    verifier = BagVerifier(include_hidden=include_hidden, workers=workers or from_env(workers_from_env))
    try:
        if fast:
            verifier.check_complete(directory, check_tag_manifests=tag_manifests)
        else:
            verifier.verify(directory, check_tag_manifests=tag_manifests)
    except BagError as error:
        click.echo(f"Bag '{directory}' is invalid: {error}", err=True)
        sys.exit(1)

    click.echo(f"Bag '{directory}' is {'complete' if fast else 'valid'}")


@cli.command()
@click.option('--include-hidden/--no-include-hidden', default=None, help='Count hidden files')
@click.argument('directory', type=EXISTING_DIRECTORY)
def stats(include_hidden: Optional[bool], directory: Path):
    """Count the payload files of DIRECTORY and their total size.

    For a bag only its payload is counted.
    """
    if include_hidden is None:
        include_hidden = from_env(include_hidden_from_env)
    policy = WalkPolicy(include_hidden=include_hidden)
    if is_bag(directory):
        try:
            bag = read_bag(directory)
        except BagError as error:
            click.echo(f"Bag '{directory}' is invalid: {error}", err=True)
            sys.exit(1)
        file_count = count_files_and_size(bag.payload_dir, policy)
    else:
        file_count = count_files_and_size(directory, policy)

    click.echo(f"Files: {file_count.count}")
    click.echo(f"Total size: {file_count.total_size} bytes")
    click.echo(f"Payload-Oxum: {file_count.payload_oxum}")


if __name__ == "__main__":
    cli()
