import logging
import os
import sys

from typing import List, Optional
from typing_extensions import Annotated

import typer.core

typer.core.rich = None

import typer  # noqa: E402

from ..config import DEFAULT_IMAGE, DEFAULT_SECRET_LABEL_SELECTOR, Settings  # noqa: E402
from ..exceptions import ConfigurationError  # noqa: E402
from ..selectors import LabelSelector  # noqa: E402


app = typer.Typer(add_completion=False)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option('--verbose', '-v')] = False,
    debug: Annotated[bool, typer.Option('--debug', '-d')] = False,
) -> None:
    """
    Operator for gateway resources.
    """
    setattr(ctx, 'obj', {})

    logging.basicConfig(
        level=logging.ERROR,
        format='%(levelname)s: %(module)s: %(message)s',
        stream=sys.stderr,
    )
    log = logging.getLogger('gatewayop')
    log_level = logging.ERROR
    if verbose:
        log_level = logging.INFO
    if debug:
        log_level = logging.DEBUG
    log.setLevel(log_level)
    ctx.obj['log_level'] = log_level
    ctx.obj['log'] = log
    ctx.obj['debug'] = debug


def split_namespaces(values):
    """Namespaces may be given repeatedly and/or comma separated."""
    namespaces = []
    for value in values or []:
        for namespace in value.split(','):
            namespace = namespace.strip()
            if namespace and namespace not in namespaces:
                namespaces.append(namespace)
    return namespaces


@app.command(name='run', short_help='run the operator')
def run(
    ctx: typer.Context,
    all_namespaces: Annotated[
        bool, typer.Option('--all-namespaces', help='Watch all namespaces.')
    ] = False,
    namespaces: Annotated[
        List[str],
        typer.Option(
            '--namespace',
            envvar='WATCH_NAMESPACE',
            help=(
                'Watch the given namespaces instead of the default. Can be given '
                'multiple times. An empty WATCH_NAMESPACE watches all namespaces.'
            ),
        ),
    ] = None,
    secret_label_selector: Annotated[
        str,
        typer.Option(
            envvar='GATEWAY_SECRET_LABEL_SELECTOR',
            help='Only configuration secrets matching this label selector trigger reconciliation.',
        ),
    ] = DEFAULT_SECRET_LABEL_SELECTOR,
    concurrency: Annotated[
        int,
        typer.Option(envvar='GATEWAY_CONCURRENCY', min=1, help='Number of concurrent reconciles.'),
    ] = 1,
    reconcile_timeout: Annotated[
        Optional[float],
        typer.Option(envvar='GATEWAY_RECONCILE_TIMEOUT', help='Seconds a single reconcile may take.'),
    ] = None,
    default_image: Annotated[
        str,
        typer.Option(envvar='GATEWAY_IMAGE', help='Image used for gateways that do not specify one.'),
    ] = DEFAULT_IMAGE,
) -> None:
    try:
        LabelSelector.parse(secret_label_selector)
    except ConfigurationError as e:
        raise typer.BadParameter(e.message, param_hint='--secret-label-selector') from e

    if not namespaces and os.environ.get('WATCH_NAMESPACE') == '':
        # WATCH_NAMESPACE set but empty means all namespaces.
        all_namespaces = True

    settings = Settings(
        namespaces=split_namespaces(namespaces),
        all_namespaces=all_namespaces,
        secret_label_selector=secret_label_selector,
        default_image=default_image,
        concurrency=concurrency,
        reconcile_timeout=reconcile_timeout,
        debug=ctx.obj.get('debug', False),
    )
    ctx.obj['log'].debug('settings: %r', settings)

    import gatewayop

    gatewayop.run(settings)


if __name__ == '__main__':
    app()
