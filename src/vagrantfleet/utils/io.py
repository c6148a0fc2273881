import os

from vagrantfleet import log


def write_file(fpath: str, content: str, mode: int = None) -> str:
    """
    Write *content* to *fpath*, creating the parent directory if needed.

    :param fpath: the destination path, ``~`` is expanded
    :param content: the text to write
    :param mode: optional permission bits applied after writing
    :return: the expanded path that was written
    """
    fpath = os.path.expanduser(fpath)
    dirpath = os.path.dirname(fpath)
    if dirpath and not os.path.exists(dirpath):
        os.makedirs(dirpath, exist_ok=True)

    with open(fpath, 'w') as fobj:
        fobj.write(content)

    if mode is not None:
        os.chmod(fpath, mode)

    log.debug(f'wrote file {fpath}')
    return fpath
