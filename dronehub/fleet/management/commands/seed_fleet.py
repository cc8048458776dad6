"""
Management command to add predefined drone models and drones to the database
"""
from django.core.management.base import BaseCommand, CommandError
from dronehub.fleet.models import DroneModel, Drone


class Command(BaseCommand):
    help = "Adds predefined drone models and one or more drones of each"

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete all existing drones and drone models before seeding. '
                 'Refused while any drone is on an approved loan',
        )

    def handle(self, *args, **options):
        clear = options['clear']

        # (model name, manufacturer, specs, drone names)
        fleet = [
            ('Mavic 3 Pro', 'DJI', {'flight_time_min': 43, 'max_range_km': 28, 'camera': '4/3 CMOS Hasselblad'},
             ['Mavic-01', 'Mavic-02']),
            ('Mini 4 Pro', 'DJI', {'flight_time_min': 34, 'max_range_km': 20, 'weight_g': 249},
             ['Mini-01', 'Mini-02', 'Mini-03']),
            ('Matrice 350 RTK', 'DJI', {'flight_time_min': 55, 'max_payload_kg': 2.7, 'ip_rating': 'IP55'},
             ['Matrice-01']),
            ('EVO II Pro', 'Autel Robotics', {'flight_time_min': 40, 'max_range_km': 15, 'camera': '6K'},
             ['EVO-01']),
            ('Anafi USA', 'Parrot', {'flight_time_min': 32, 'zoom': '32x', 'thermal': True},
             ['Anafi-01']),
            ('Skydio 2+', 'Skydio', {'flight_time_min': 27, 'obstacle_avoidance': '360'},
             ['Skydio-01']),
        ]

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("SEEDING DRONE FLEET"))
        self.stdout.write(self.style.SUCCESS("=" * 80))

        if clear:
            if Drone.objects.filter(borrow_requests__status='approved').exists():
                raise CommandError('Cannot clear the fleet while drones are on approved loans. '
                                   'Return them first')
            self.stdout.write(self.style.WARNING("Clearing all existing drones and drone models..."))
            Drone.objects.all().delete()
            DroneModel.objects.all().delete()
            self.stdout.write(self.style.SUCCESS("Fleet cleared."))

        models_created = 0
        drones_created = 0
        skipped_count = 0

        for model_name, manufacturer, specs, drone_names in fleet:
            drone_model, created = DroneModel.objects.get_or_create(
                name=model_name,
                manufacturer=manufacturer,
                defaults={'specs': specs},
            )
            if created:
                models_created += 1
                self.stdout.write(self.style.SUCCESS(f"  ✓ Created model: {drone_model}"))
            else:
                self.stdout.write(self.style.WARNING(f"  ⊘ Model exists: {drone_model}"))

            for drone_name in drone_names:
                _drone, created = Drone.objects.get_or_create(
                    name=drone_name,
                    defaults={'model': drone_model, 'status': Drone.STATUS_AVAILABLE},
                )
                if created:
                    drones_created += 1
                    self.stdout.write(self.style.SUCCESS(f"    ✓ Created drone: {drone_name}"))
                else:
                    skipped_count += 1
                    self.stdout.write(self.style.WARNING(f"    ⊘ Skipped (already exists): {drone_name}"))

        self.stdout.write(self.style.SUCCESS("\n" + "=" * 80))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"Drone Models Created: {models_created}")
        self.stdout.write(f"Drones Created: {drones_created}")
        self.stdout.write(f"Drones Skipped (already exist): {skipped_count}")
        self.stdout.write(f"Total Drones in Database: {Drone.objects.count()}")
        self.stdout.write(self.style.SUCCESS("=" * 80))
