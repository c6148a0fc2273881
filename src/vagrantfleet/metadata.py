from importlib.metadata import version as _get_version, PackageNotFoundError

package = 'vagrantfleet'
project = 'vagrantfleet'
project_no_spaces = project.replace(' ', '')

try:
    version = _get_version(package)
except PackageNotFoundError:
    version = '0.0.0.dev0'

description = 'vagrantfleet – spin up N numbered Vagrant machines with ssh access'
authors = ['John Smith']
authors_string = ', '.join(authors)
emails = ['john@example.com']
license = 'MIT'
copyright = '20XX ' + authors_string
url = 'https://vagrantfleet.example.com'
